import sys

from dua_vault.main import main

sys.exit(main())
