"""Web view collaborators backed by Playwright."""
