from tidb_exporter.cli import main

raise SystemExit(main())
