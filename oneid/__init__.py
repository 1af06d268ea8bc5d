"""OneID identity console package.

To build the Flask app:
    from oneid.flask_app import create_app

To test a PingOne connection directly:
    from oneid.core.pingone import ConnectionConfig, test_connection
"""
# flask_app is not imported here so the CLI can use oneid.core without Flask
