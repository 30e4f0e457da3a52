"""Services used by the deployment pipeline."""
