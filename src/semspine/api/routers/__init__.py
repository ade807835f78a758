"""REST routers, mounted under the API prefix by :func:`semspine.api.app.create_app`."""
