import os

from dotenv import load_dotenv

# Loads APPSHEET_ACCESS_KEY, SHEET_ID, ... from the .env file
load_dotenv()

from maintenance_kpis import create_app

app = create_app(os.environ.get('FLASK_CONFIG', 'default'))

if __name__ == "__main__":
    port = int(os.environ.get('PORT', 5001))
    app.run(debug=app.config['DEBUG'], port=port, host='0.0.0.0')
