"""
Development entry point.

    flask --app run.py init-db
    flask --app run.py seed-demo
    flask --app run.py --debug run

Production servers import `run:app`.
"""

from mrs import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
