from .user import User, UserRole
from .employer import Employer
from .candidate import Candidate
from .job import Job
from .introduction import Introduction, IntroductionStatus, CandidateResponse
from .check_in import CheckIn
from .circumvention_flag import CircumventionFlag, FlagStatus, DetectionMethod
from .placement import Placement, PlacementStatus
from .notification import Notification
from .setting import PlatformSetting
# base and mixins are imported by the above as needed
