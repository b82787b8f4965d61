"""AgencyDesk - agency billing backend."""
