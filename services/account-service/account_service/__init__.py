"""Shopping mall account service: registration, login, tokens and profiles."""
