from jobsim.cli import main

raise SystemExit(main())
