from dataclasses import dataclass, field
from typing import List

from ..models.placement import Placement, PlacementStatus
from ..services.mail import send_template
from ..utils.timeutil import utcnow
from .window_sweep import TimeWindowSweep


@dataclass
class GuaranteeResult:
    expiring: int = 0
    warnings_sent: int = 0
    completed: int = 0
    errors: List[str] = field(default_factory=list)


class GuaranteeSweep(TimeWindowSweep):
    """Placement guarantee periods: warn the employer, then complete."""
    job_name = 'guarantee-checks'
    model = Placement
    deadline = 'guarantee_end_date'

    def __init__(self, now=None):
        super().__init__(now=now)
        self.result = GuaranteeResult(errors=self.errors)

    def active_query(self):
        return Placement.query.filter(Placement.status == PlacementStatus.CONFIRMED,
                                      Placement.guarantee_end_date.isnot(None))

    def on_expiring(self, placement):
        if placement.guarantee_warning_sent_at is not None:
            return
        employer = placement.employer
        to = employer.billing_email if employer else None
        if not to:
            self.error(placement.id, 'employer has no email')
            return
        mail = send_template(
            to,
            f'Guarantee period ending soon for {placement.candidate.name}',
            'guarantee_warning',
            kind='guarantee_warning',
            company_name=employer.company_name,
            candidate_name=placement.candidate.name,
            job_title=placement.job_title,
            start_date=placement.start_date,
            guarantee_end_date=placement.guarantee_end_date,
        )
        if mail.success:
            placement.guarantee_warning_sent_at = self.now
            self.result.warnings_sent += 1
        else:
            self.error(placement.id, f'guarantee warning not sent: {mail.error}')

    def on_ended(self, placement):
        placement.status = PlacementStatus.COMPLETED
        self.result.completed += 1
        self.log('placement %s guarantee ended, marked COMPLETED', placement.id)

    def run(self) -> GuaranteeResult:
        self.result.expiring, _ = self.sweep()
        return self.result


def run_guarantee_checks(now=None) -> GuaranteeResult:
    return GuaranteeSweep(now=now or utcnow()).run()
