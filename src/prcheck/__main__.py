from prcheck import main

raise SystemExit(main())
