import sys

from localazy_sync.main import main

sys.exit(main())
