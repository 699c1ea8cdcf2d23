"""FastAPI backend for the onboarding extraction pipeline."""
