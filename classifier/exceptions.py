class ClassifierFailure(Exception):
    """The classifier could not load, decode the image, or run inference."""
