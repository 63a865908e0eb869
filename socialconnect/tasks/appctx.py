# socialconnect/tasks/appctx.py

from flask import Flask, has_app_context


# Import the factory inside the function; the app package imports the tasks
def get_app() -> Flask:
    from socialconnect import create_app
    return create_app()


def run_in_app_context(fn, *args, **kwargs):
    """RQ workers run outside Flask; build the app once per job unless one is already active."""
    if has_app_context():
        return fn(*args, **kwargs)
    app = get_app()
    with app.app_context():
        return fn(*args, **kwargs)
