"""CDK constructs for the CSP report ingestion endpoint."""
