"""Pipeline core — artifact freshness, stage graph, tool runner, orchestration."""
