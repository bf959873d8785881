from dsprune.cli import main

raise SystemExit(main())
