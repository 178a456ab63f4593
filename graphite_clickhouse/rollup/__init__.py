"""Subpackage set aside for rollup handling; it holds no modules at present."""