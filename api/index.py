from mangum import Mangum
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stocky.api import create_app

# routes already carry the /api prefix, so no root_path here
app = create_app()

handler = Mangum(app, lifespan="auto")
