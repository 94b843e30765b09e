import sys

from dnsmat.main import main

sys.exit(main())
