import sys

from mail_search.cli import main


sys.exit(main())
