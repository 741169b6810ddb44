"""Shared fixtures for the PPM predictor tests."""

import pytest

from prediction.ppm import PPMLanguageModel
from prediction.vocabulary import Vocabulary

SAMPLE_TEXT = "THE CAT SAT ON THE MAT AND THE DOG SAT ON THE LOG"


@pytest.fixture
def ab_vocab():
    return Vocabulary("AB")


@pytest.fixture
def text_vocab():
    return Vocabulary.from_text(SAMPLE_TEXT)


@pytest.fixture
def trained_model(text_vocab):
    """Order-3 model trained on SAMPLE_TEXT, with its trailing context."""
    model = PPMLanguageModel(text_vocab, max_order=3)
    context = model.observe_symbols(model.create_context(), text_vocab.encode(SAMPLE_TEXT))
    return model, context
