"""Run one of the cron sweeps from the command line.

Usage:
  python scripts/run_job.py check-ins|expiry-alerts|guarantee-checks
"""

import sys
import os
import json

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
  sys.path.insert(0, ROOT)

from hirehub import create_app
from hirehub.blueprints.cron.routes import CRON_JOBS


def main(argv):
  if len(argv) != 2 or argv[1] not in CRON_JOBS:
    print(__doc__)
    return 2
  app = create_app()
  with app.app_context():
    result = CRON_JOBS[argv[1]]()
  print(json.dumps(vars(result), indent=2, default=str))
  return 1 if result.errors else 0


if __name__ == '__main__':
  sys.exit(main(sys.argv))
