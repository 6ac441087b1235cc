import logging

import pytest
from omegaconf import OmegaConf

from rdma_shuffle.config import ConfStore, RdmaShuffleConf, PARAMETERS, RDMA_CONF_PREFIX
from rdma_shuffle.config.shuffle_conf import Kind, KeyStrategy, conf_value

MB = 1024 * 1024

DEFAULTS = {
    "recv_queue_depth": 1024,
    "send_queue_depth": 4096,
    "recv_wr_size": 4 * 1024,
    "sw_flow_control": True,
    "cpu_list": "",
    "shuffle_write_block_size": 8 * MB,
    "shuffle_read_block_size": 256 * 1024,
    "max_bytes_in_flight": MB,
    "max_agg_block": 2 * MB,
    "max_agg_prealloc": 0,
    "collect_shuffle_reader_stats": False,
    "partition_location_fetch_timeout": 30000,
    "fetch_time_bucket_size_in_ms": 300,
    "fetch_time_num_buckets": 5,
    "driver_host": None,
    "driver_port": 0,
    "executor_port": 0,
    "port_max_retries": 16,
    "rdma_cm_event_timeout": 20000,
    "teardown_listen_timeout": 50,
    "resolve_path_timeout": 2000,
    "max_connection_attempts": 5,
}


def rdma_conf(**values):
    return RdmaShuffleConf(ConfStore({RDMA_CONF_PREFIX + k: v for k, v in values.items()}))


def test_catalogue_is_closed_and_ordered():
    assert list(PARAMETERS) == list(DEFAULTS)


def test_catalogue_key_strategies():
    global_keys = {name: spec.key for name, spec in PARAMETERS.items() if spec.strategy is KeyStrategy.GLOBAL}
    assert global_keys == {"driver_host": "spark.driver.host", "port_max_retries": "spark.port.maxRetries"}
    for name, spec in PARAMETERS.items():
        if spec.strategy is KeyStrategy.PREFIXED:
            assert spec.key == RDMA_CONF_PREFIX + spec.name


def test_class_attribute_exposes_the_parameter_spec():
    attr = RdmaShuffleConf.recv_queue_depth
    assert isinstance(attr, conf_value)
    assert (attr.spec.default, attr.spec.min, attr.spec.max) == (1024, 256, 65535)


def test_defaults_when_nothing_is_configured(store):
    assert RdmaShuffleConf(store).describe() == DEFAULTS


@pytest.mark.parametrize("name", [n for n, s in PARAMETERS.items() if s.kind is Kind.INT and s.min is not None
                                  and not n.endswith("_port")])
def test_integer_defaults_lie_inside_their_own_bounds(name):
    spec = PARAMETERS[name]
    assert spec.min <= spec.default <= spec.max


def test_recv_queue_depth_scenario():
    assert rdma_conf(recvQueueDepth="100").recv_queue_depth == 1024
    assert rdma_conf(recvQueueDepth="2048").recv_queue_depth == 2048
    assert rdma_conf().recv_queue_depth == 1024


@pytest.mark.parametrize("value, expected", [
    (256, 256), (65535, 65535), (4096, 4096), (255, 1024), (65536, 1024), (-1, 1024), (0, 1024),
])
def test_integer_range_bounds_are_inclusive(value, expected):
    assert rdma_conf(recvQueueDepth=str(value)).recv_queue_depth == expected


def test_timeouts_accept_minus_one():
    conf = rdma_conf(rdmaCmEventTimeout="-1", teardownListenTimeout="-2", resolvePathTimeout="60001")
    assert conf.rdma_cm_event_timeout == -1
    assert conf.teardown_listen_timeout == 50
    assert conf.resolve_path_timeout == 2000


def test_partition_location_fetch_timeout_upper_bound():
    assert rdma_conf(partitionLocationFetchTimeout="2147483647").partition_location_fetch_timeout == 2 ** 31 - 1
    assert rdma_conf(partitionLocationFetchTimeout="999").partition_location_fetch_timeout == 30000


@pytest.mark.parametrize("value, expected", [("4040", 4040), ("1025", 1025), ("1024", 0), ("80", 0), ("70000", 0)])
def test_ports_fall_back_to_ephemeral(value, expected):
    conf = rdma_conf(driverPort=value, executorPort=value)
    assert conf.driver_port == expected
    assert conf.executor_port == expected


@pytest.mark.parametrize("value, expected", [
    ("8m", 8 * MB), ("8M", 8 * MB), ("4k", 4096), ("512m", 512 * MB), ("1k", 8 * MB), ("1g", 8 * MB),
])
def test_size_range(value, expected):
    assert rdma_conf(shuffleWriteBlockSize=value).shuffle_write_block_size == expected


def test_size_ranges_starting_at_zero():
    conf = rdma_conf(shuffleReadBlockSize="0", maxAggPrealloc="10g", maxAggBlock="1m", maxBytesInFlight="100g")
    assert conf.shuffle_read_block_size == 0
    assert conf.max_agg_prealloc == 10 * 1024 * MB
    assert conf.max_agg_block == 2 * MB
    assert conf.max_bytes_in_flight == 100 * 1024 * MB


def test_recv_wr_size_is_an_integer_byte_count():
    conf = rdma_conf(recvWrSize="64k")
    assert conf.recv_wr_size == 64 * 1024
    assert isinstance(conf.recv_wr_size, int)


def test_booleans_and_strings():
    conf = rdma_conf(swFlowControl="false", collectShuffleReaderStats="TRUE", cpuList="0-3,8")
    assert conf.sw_flow_control is False
    assert conf.collect_shuffle_reader_stats is True
    assert conf.cpu_list == "0-3,8"


def test_malformed_values_propagate_and_are_not_cached():
    store = ConfStore({RDMA_CONF_PREFIX + "recvQueueDepth": "lots"})
    conf = RdmaShuffleConf(store)
    with pytest.raises(ValueError):
        conf.recv_queue_depth
    store.set(RDMA_CONF_PREFIX + "recvQueueDepth", "2048")
    assert conf.recv_queue_depth == 2048


@pytest.mark.parametrize("key, value", [
    ("swFlowControl", "maybe"), ("shuffleWriteBlockSize", "1.5m"), ("maxBytesInFlight", "10q"),
])
def test_malformed_typed_values_raise(key, value):
    conf = rdma_conf(**{key: value})
    with pytest.raises(ValueError):
        conf.describe()


def test_driver_host_reads_the_global_key():
    store = ConfStore({RDMA_CONF_PREFIX + "driverHost": "ignored"})
    conf = RdmaShuffleConf(store)
    with pytest.raises(KeyError):
        conf.driver_host
    store.set("spark.driver.host", "driver-0")
    assert conf.driver_host == "driver-0"


def test_port_max_retries_reads_the_global_key_without_bounds():
    conf = RdmaShuffleConf(ConfStore({"spark.port.maxRetries": "100000", RDMA_CONF_PREFIX + "portMaxRetries": "3"}))
    assert conf.port_max_retries == 100000


def test_accepts_plain_mappings():
    conf = RdmaShuffleConf({"spark.shuffle.rdma.sendQueueDepth": 512})
    assert conf.send_queue_depth == 512


@pytest.mark.parametrize("name", [n for n in PARAMETERS if n != "driver_host"])
def test_resolved_values_survive_store_mutation(name, store):
    conf = RdmaShuffleConf(store)
    first = getattr(conf, name)
    spec = PARAMETERS[name]
    replacement = {Kind.INT: "1030", Kind.BYTES: "16k", Kind.BOOLEAN: str(not first).lower(), Kind.STRING: "7"}
    store.set(spec.key, replacement[spec.kind])
    assert getattr(conf, name) == first
    assert conf.resolution(name).value == first


def test_fresh_resolver_sees_store_changes(store):
    assert RdmaShuffleConf(store).send_queue_depth == 4096
    store.set(RDMA_CONF_PREFIX + "sendQueueDepth", "8192")
    assert RdmaShuffleConf(store).send_queue_depth == 8192


def test_set_driver_port_publishes_to_the_store(store):
    conf = RdmaShuffleConf(store)
    assert conf.driver_port == 0
    conf.set_driver_port(40123)
    assert store.get(RDMA_CONF_PREFIX + "driverPort") == "40123"
    assert conf.driver_port == 0
    assert RdmaShuffleConf(store).driver_port == 40123


def test_get_rdma_conf_key_is_a_raw_uncached_read(store):
    conf = RdmaShuffleConf(store)
    assert conf.get_rdma_conf_key("devName", "mlx5_0") == "mlx5_0"
    store.set(RDMA_CONF_PREFIX + "devName", "mlx5_1")
    assert conf.get_rdma_conf_key("devName", "mlx5_0") == "mlx5_1"


def test_unknown_parameter_name():
    with pytest.raises(ValueError, match="Unknown RDMA shuffle parameter"):
        rdma_conf().resolution("recvQueueDepth")


def test_fallbacks_are_recorded():
    conf = rdma_conf(recvQueueDepth="100", sendQueueDepth="2048", shuffleWriteBlockSize="1k")
    conf.describe()
    fallbacks = {r.name: r for r in conf.fallbacks()}
    assert set(fallbacks) == {"recv_queue_depth", "shuffle_write_block_size"}

    recv = fallbacks["recv_queue_depth"]
    assert recv.key == RDMA_CONF_PREFIX + "recvQueueDepth"
    assert recv.configured == "100"
    assert recv.value == 1024
    assert "outside [256, 65535]" in recv.reason

    assert "outside [4k, 512m]" in fallbacks["shuffle_write_block_size"].reason


def test_unset_out_of_range_default_is_not_a_fallback():
    conf = rdma_conf()
    resolution = conf.resolution("driver_port")
    assert resolution.value == 0
    assert resolution.configured is None
    assert not resolution.fell_back
    assert conf.fallbacks() == []


def test_resolutions_follow_catalogue_order():
    conf = rdma_conf()
    conf.max_connection_attempts
    conf.recv_queue_depth
    assert [r.name for r in conf.resolutions()] == ["recv_queue_depth", "max_connection_attempts"]


def test_fallback_is_logged_once(caplog):
    conf = rdma_conf(fetchTimeNumBuckets="1000")
    with caplog.at_level(logging.WARNING, logger="rdma_shuffle.config.shuffle_conf"):
        assert conf.fetch_time_num_buckets == 5
        assert conf.fetch_time_num_buckets == 5
    messages = [r.getMessage() for r in caplog.records if "[CONFIG][FALLBACK]" in r.getMessage()]
    assert len(messages) == 1
    assert "spark.shuffle.rdma.fetchTimeNumBuckets=1000" in messages[0]


def test_negative_yaml_integer_size_raises():
    conf = RdmaShuffleConf(ConfStore(OmegaConf.create("spark:\n  shuffle:\n    rdma:\n      shuffleReadBlockSize: -1\n")))
    with pytest.raises(ValueError):
        conf.shuffle_read_block_size
    assert conf.fallbacks() == []


def test_yaml_integer_size_is_bytes():
    conf = RdmaShuffleConf(ConfStore(OmegaConf.create("spark:\n  shuffle:\n    rdma:\n      recvWrSize: 8192\n")))
    assert conf.recv_wr_size == 8192


def test_oversized_byte_value_raises_instead_of_falling_back():
    conf = rdma_conf(maxAggPrealloc="99999999999p")
    with pytest.raises(ValueError, match="too large"):
        conf.max_agg_prealloc
    assert conf.fallbacks() == []
