from registration_backend.app import main

raise SystemExit(main())
