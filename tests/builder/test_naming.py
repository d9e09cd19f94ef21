from schemagraph.builder.naming import InstanceNamer


def test_generate_counts_per_base_name():
    namer = InstanceNamer()
    assert namer.generate("v1/user/user.schema.json") == "user-1"
    assert namer.generate("v1/user/user.schema.json") == "user-2"
    assert namer.generate("v1/address/address.schema.json") == "address-1"
    assert namer.generate("legacy/user.json") == "user-3"


def test_reset_and_set_counter():
    namer = InstanceNamer()
    namer.generate("user.schema.json")
    namer.reset()
    assert namer.generate("user.schema.json") == "user-1"
    namer.set_counter("user", 41)
    assert namer.generate("user.schema.json") == "user-42"


def test_restore_from_ids_uses_max_observed_number():
    namer = InstanceNamer()
    namer.generate("order.schema.json")
    namer.restore_from_ids(["user-3", "user-10", "line-item-2", "custom", "user-x"])
    assert namer.counters == {"user": 10, "line-item": 2}
    assert namer.generate("v1/user/user.schema.json") == "user-11"
    assert namer.generate("v1/order/line-item.schema.json") == "line-item-3"
    assert namer.generate("v1/order/order.schema.json") == "order-1"


def test_observe_never_lowers_counters():
    namer = InstanceNamer()
    namer.set_counter("user", 5)
    namer.observe(["user-2"])
    assert namer.counter("user") == 5


def test_namers_are_independent():
    first, second = InstanceNamer(), InstanceNamer()
    first.generate("user.schema.json")
    assert second.generate("user.schema.json") == "user-1"


def test_custom_suffixes():
    namer = InstanceNamer(suffixes=[".yaml"])
    assert namer.generate("things/widget.yaml") == "widget-1"
