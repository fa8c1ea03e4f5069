"""Business services: validation, claims workflow, audit and bulk loading."""
