def capabilities(params, settings):
    return {}


def items(params, settings):
    raise RuntimeError("itemsThrow")


def annotations(params, settings):
    raise RuntimeError("annotationsThrow")
