"""Library lending service: loan lifecycle engine with a Flask JSON API."""
