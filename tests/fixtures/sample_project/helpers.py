def wrap(fn):
    def inner(*args):
        return fn(*args)
    return inner
