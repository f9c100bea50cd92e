"""
GraphBuilder / NodeArena / OpRegistry 单元测试

测试覆盖：
- 按张量名连边，节点顺序与程序顺序一致
- last-writer-wins
- 参数槽位不产生边
- 未知算子类型报错
"""

import pytest


class TestNodeArena:
    """NodeArena 测试"""

    def test_connect_both_ends(self, make_op):
        from opfuse.graph import NodeArena

        arena = NodeArena()
        a = arena.add(make_op("relu", {"X": ["x"]}, {"Out": ["y"]}))
        b = arena.add(make_op("relu", {"X": ["y"]}, {"Out": ["z"]}))
        arena.connect(a, b)

        assert arena[a].outputs == [b]
        assert arena[b].inputs == [a]
        assert [n.index for n in arena.successors(a)] == [b]
        assert [n.index for n in arena.predecessors(b)] == [a]

    def test_connect_keeps_duplicate_edges(self, make_op):
        from opfuse.graph import NodeArena

        arena = NodeArena()
        a = arena.add(make_op("relu", {"X": ["x"]}, {"Out": ["y"]}))
        b = arena.add(make_op("relu", {"X": ["y"]}, {"Out": ["z"]}))
        arena.connect(a, b)
        arena.connect(a, b)

        assert arena[a].outputs == [b, b]
        assert arena[b].inputs == [a, a]


class TestGraphBuilder:
    """GraphBuilder 测试"""

    def test_linear_chain(self, conv_chain_ops):
        from opfuse.graph_builder import GraphBuilder
        from opfuse.program import BlockDesc

        built = GraphBuilder().build(BlockDesc(ops=conv_chain_ops()))

        assert [n.op_type for n in built.arena] == [
            "conv2d", "elementwise_add", "batch_norm", "relu"
        ]
        assert [n.outputs for n in built.arena] == [[1], [2], [3], []]
        assert [n.inputs for n in built.arena] == [[], [0], [1], [2]]

    def test_type_groups_keep_program_order(self, conv_chain_ops):
        from opfuse.graph_builder import GraphBuilder
        from opfuse.program import BlockDesc

        ops = conv_chain_ops("a_") + conv_chain_ops("b_")
        built = GraphBuilder().build(BlockDesc(ops=ops))

        assert built.type_groups["conv2d"] == [0, 4]
        assert built.type_groups["relu"] == [3, 7]
        assert built.candidates("pool2d") == []

    def test_candidates_is_snapshot(self, conv_chain_ops):
        from opfuse.graph_builder import GraphBuilder
        from opfuse.program import BlockDesc

        built = GraphBuilder().build(BlockDesc(ops=conv_chain_ops()))
        candidates = built.candidates("conv2d")
        candidates.append(99)

        assert built.type_groups["conv2d"] == [0]

    def test_last_writer_wins(self, make_op):
        from opfuse.graph_builder import GraphBuilder
        from opfuse.program import BlockDesc

        ops = [
            make_op("relu", {"X": ["x"]}, {"Out": ["t"]}),
            make_op("relu", {"X": ["t"]}, {"Out": ["u"]}),
            make_op("sigmoid", {"X": ["x"]}, {"Out": ["t"]}),
            make_op("relu", {"X": ["t"]}, {"Out": ["w"]}),
        ]
        built = GraphBuilder().build(BlockDesc(ops=ops))

        # 第 1 个 relu 读到的是第 0 个算子写的 t
        assert built.arena[0].outputs == [1]
        # 第 3 个 relu 读到的是 sigmoid 写的 t
        assert built.arena[2].outputs == [3]
        assert built.arena[3].inputs == [2]

    def test_one_edge_per_tensor_name(self, make_op):
        from opfuse.graph_builder import GraphBuilder
        from opfuse.program import BlockDesc

        ops = [
            make_op("conv2d", {"Input": ["x"]}, {"Output": ["c"]}),
            make_op("elementwise_add", {"X": ["c", "c"]}, {"Out": ["y"]}),
        ]
        built = GraphBuilder().build(BlockDesc(ops=ops))

        assert built.arena[0].outputs == [1, 1]
        assert built.arena[1].inputs == [0, 0]

    def test_params_do_not_create_edges(self, make_op):
        from opfuse.graph_builder import GraphBuilder
        from opfuse.program import BlockDesc

        ops = [
            make_op("feed", {"X": ["feed"]}, {"Out": ["w"]}),
            make_op(
                "conv2d", {"Input": ["x"]}, {"Output": ["y"]}, params={"Filter": ["w"]}
            ),
        ]
        built = GraphBuilder().build(BlockDesc(ops=ops))

        assert built.arena[0].outputs == []
        assert built.arena[1].inputs == []

    def test_undeclared_slots_ignored(self, make_op):
        from opfuse.graph_builder import GraphBuilder
        from opfuse.program import BlockDesc

        ops = [
            make_op("relu", {"X": ["x"]}, {"Out": ["y"], "Extra": ["z"]}),
            make_op("relu", {"X": ["z"]}, {"Out": ["w"]}),
        ]
        built = GraphBuilder().build(BlockDesc(ops=ops))

        assert built.arena[0].outputs == []

    def test_nodes_wrap_clones(self, conv_chain_ops):
        from opfuse.graph_builder import GraphBuilder
        from opfuse.program import BlockDesc

        block = BlockDesc(ops=conv_chain_ops())
        built = GraphBuilder().build(block)
        built.arena[0].op_desc.attrs["groups"] = 4

        assert block.ops[0].attrs["groups"] == 1
        assert built.arena[0].op_desc is not block.ops[0]

    def test_unknown_operator_type(self, make_op):
        from opfuse.errors import FusionError, UnknownOperatorType
        from opfuse.graph_builder import GraphBuilder
        from opfuse.program import BlockDesc

        ops = [
            make_op("relu", {"X": ["x"]}, {"Out": ["y"]}),
            make_op("mystery_op", {"X": ["y"]}, {"Out": ["z"]}),
        ]

        with pytest.raises(UnknownOperatorType) as exc_info:
            GraphBuilder().build(BlockDesc(ops=ops))

        assert exc_info.value.op_type == "mystery_op"
        assert isinstance(exc_info.value, FusionError)


class TestOpRegistry:
    """OpRegistry 测试"""

    def test_default_entries(self):
        from opfuse.op_registry import default_registry

        registry = default_registry()

        assert registry.lookup("conv2d").inputs == ("Input",)
        assert registry.lookup("batch_norm").outputs == ("Y",)
        assert "conv_add_batchnorm_relu" in registry

    def test_register_custom(self):
        from opfuse.op_registry import OpRegistry

        registry = OpRegistry({})
        registry.register("gelu", inputs=["X"], outputs=["Out"])

        assert len(registry) == 1
        assert list(registry) == ["gelu"]
        assert registry.lookup("gelu").outputs == ("Out",)

    def test_registries_are_independent(self):
        from opfuse.op_registry import default_registry

        first = default_registry()
        first.register("gelu", inputs=["X"], outputs=["Out"])

        assert "gelu" not in default_registry()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
