from latency_probe.main import main

raise SystemExit(main())
