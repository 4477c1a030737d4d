from logcontext.context.binding import bind_arguments, get_signature


def create_order(id, customer, *, region="eu", **metadata):
    pass


def test_binds_positional_keyword_and_defaults():
    bindings = bind_arguments(get_signature(create_order), ("1",), {"customer": "Alice", "tag": "x"})

    assert bindings == {
        "id": "1",
        "customer": "Alice",
        "region": "eu",
        "metadata": {"tag": "x"},
    }


def test_unbindable_arguments():
    assert bind_arguments(get_signature(create_order), (), {}) is None


def test_signature_of_bound_method_skips_self():
    class Service:
        def handle(self, id):
            pass

    assert bind_arguments(get_signature(Service().handle), ("1",), {}) == {"id": "1"}
