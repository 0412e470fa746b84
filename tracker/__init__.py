"""
ISS pass dashboard backend: resilient position fetch, pass search and sink logging.
"""
