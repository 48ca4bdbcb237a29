import sys

from hotpot.otp_cli import main

sys.exit(main())
