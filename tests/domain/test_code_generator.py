"""Tests for order and lot code generation."""

import random
import re
from datetime import datetime, timezone

from compounding_kernel.domain.clock import DeterministicClock
from compounding_kernel.domain.codes import CodeGenerator
from compounding_kernel.domain.values import ProductionLine


def _generator(**kwargs) -> CodeGenerator:
    clock = DeterministicClock(datetime(2024, 3, 7, 9, 5, 30, tzinfo=timezone.utc))
    return CodeGenerator(clock, rng=random.Random(7), **kwargs)


def test_order_code_format():
    assert re.fullmatch(r"PROD-20240307-\d{4}", _generator().order_code())


def test_lot_code_format():
    assert re.fullmatch(r"LOT-20240307-090530-\d{3}", _generator().lot_code())


def test_mix_lot_code_per_line():
    generator = _generator()
    assert re.fullmatch(r"HG240307-ON-\d{5}", generator.mix_lot_code(ProductionLine.ONCO))
    assert re.fullmatch(r"HG240307-ET-\d{5}", generator.mix_lot_code(ProductionLine.STERILE))


def test_prefixes_are_configurable():
    generator = _generator(order_prefix="ORD", lot_prefix="L", mix_lot_prefix="MX")
    assert generator.order_code().startswith("ORD-")
    assert generator.lot_code().startswith("L-")
    assert generator.mix_lot_code(ProductionLine.ONCO).startswith("MX240307-ON-")


def test_same_seed_same_codes():
    assert _generator().order_code() == _generator().order_code()
