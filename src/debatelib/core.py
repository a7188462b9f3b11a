import sys
assert sys.version_info >= (3, 9), "Requires Python 3.9+"
import logging

logger = logging.getLogger('debatelib')
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter('%(levelname)s %(name)s: %(message)s'))
logger.addHandler(handler)

import pydantic
if pydantic.__version__ < '2':
    raise ImportError(f"debatelib requires pydantic 2, found {pydantic.__version__}")

JSON_INDENT = 2
