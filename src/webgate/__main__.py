from webgate.main import main

raise SystemExit(main())
