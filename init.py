import logging
import random

import librosa
import numpy as np


def init(random_state: int = 42, level: int = logging.INFO):

    logging.getLogger().setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    logging.info(f"numpy: {np.__version__}")
    logging.info(f"librosa: {librosa.__version__}")

    random.seed(random_state)
    np.random.seed(random_state)
