from azhealth.cli import main

raise SystemExit(main())
