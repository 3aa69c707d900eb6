"""Domain services: every write to job state goes through here."""
