"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py seed-data
    flask --app run.py --debug run

"""

from nexusorder import create_app

# WSGI application object for Flask to run. When you run `flask run`, Flask looks for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only) - use `flask run` or a WSGI server instead.
    app.run(debug=True)
