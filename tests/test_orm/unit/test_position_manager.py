"""位置管理器 PositionManager 测试

基于内存存储验证排序语义：
1. 插入时追加到组尾
2. 上移/下移/置顶/置底的位移结果
3. 边界处的幂等性
4. 任意操作序列后位置保持 0..n-1
5. 写入失败时整体回滚
6. 删除收拢、规范化、重排序、校验
"""

import random

import pytest

from ormkit.config import OrderingSettings
from ormkit.orm.sortable import (
    GroupMismatchError,
    InMemoryOrderedStore,
    InvariantViolationError,
    NotOrderableError,
    OrderingError,
    OrderingGroup,
    PositionManager,
)

from tests.helpers import Card, Plain, make_board, positions_by_title


TITLES = ["A", "B", "C", "D", "E"]


class FaultyStore(InMemoryOrderedStore):
    """保存指定记录时失败的存储（模拟写入故障）"""

    def __init__(self):
        super().__init__()
        self.fail_on = None
        self.shifted = 0

    def increment_positions(self, group, position_filter, exclude=None):
        changed = super().increment_positions(group, position_filter, exclude)
        self.shifted += changed
        return changed

    def decrement_positions(self, group, position_filter, exclude=None):
        changed = super().decrement_positions(group, position_filter, exclude)
        self.shifted += changed
        return changed

    def save(self, record):
        if record is self.fail_on:
            raise RuntimeError("simulated save failure")
        return super().save(record)


class RecordingRunner:
    """记录调用情况的事务执行器"""

    def __init__(self):
        self.calls = []

    def run(self, callback, attempts=1):
        self.calls.append(attempts)
        return callback()


# ==================== 插入 ====================

class TestAssignInitialPosition:
    """初始位置分配测试"""

    def setup_method(self):
        self.store = InMemoryOrderedStore()
        self.manager = PositionManager(self.store)

    def test_insert_appends_to_tail(self):
        """测试新记录依次追加到组尾"""
        cards = make_board(self.store, "todo", TITLES)
        assert [c.position for c in cards] == [0, 1, 2, 3, 4]

    def test_sixth_record_gets_position_five(self):
        """测试 5 条记录的组再插入一条时位置为 5"""
        make_board(self.store, "todo", TITLES)
        card = Card(title="F", board="todo")

        assert self.manager.assign_initial_position(card) == 5
        assert card.position == 5

    def test_insert_does_not_touch_others(self):
        """测试插入不修改其他记录"""
        make_board(self.store, "todo", TITLES)
        before = positions_by_title(self.store, "todo")

        self.manager.assign_initial_position(Card(title="F", board="todo"))

        assert positions_by_title(self.store, "todo") == before

    def test_groups_are_counted_separately(self):
        """测试不同分组分别计数"""
        make_board(self.store, "todo", TITLES)
        card = Card(title="X", board="done")

        assert self.manager.assign_initial_position(card) == 0

    def test_null_group_value_is_its_own_group(self):
        """测试分组值为 None 的记录单独成组"""
        make_board(self.store, "todo", ["A", "B"])
        make_board(self.store, None, ["N1"])
        card = Card(title="N2", board=None)

        assert self.manager.assign_initial_position(card) == 1

    def test_offset_for_batch_insert(self):
        """测试批量插入时通过 offset 依次排列"""
        make_board(self.store, "todo", ["A", "B"])
        first, second = Card(title="C", board="todo"), Card(title="D", board="todo")

        self.manager.assign_initial_position(first, offset=0)
        self.manager.assign_initial_position(second, offset=1)

        assert (first.position, second.position) == (2, 3)

    def test_not_orderable_record_is_skipped(self):
        """测试不参与排序的记录静默跳过"""
        record = Plain(title="P")

        assert self.manager.assign_initial_position(record) is None
        assert record.position is None

    def test_assign_does_not_open_unit_of_work(self):
        """测试初始位置分配不经过事务执行器"""
        runner = RecordingRunner()
        manager = PositionManager(self.store, runner=runner)

        manager.assign_initial_position(Card(title="A", board="todo"))

        assert runner.calls == []


# ==================== 移动 ====================

class TestMoves:
    """移动操作测试"""

    def setup_method(self):
        self.store = InMemoryOrderedStore()
        self.manager = PositionManager(self.store)
        self.cards = dict(zip(TITLES, make_board(self.store, "todo", TITLES)))
        self.other = make_board(self.store, "done", ["X", "Y", "Z"])

    def positions(self):
        return positions_by_title(self.store, "todo")

    def test_move_up_swaps_with_previous(self):
        """测试上移与前一条交换：C(2) B(1) -> C(1) B(2)"""
        assert self.manager.move_up(self.cards["C"]) is True

        assert self.positions() == {"A": 0, "C": 1, "B": 2, "D": 3, "E": 4}

    def test_move_down_swaps_with_next(self):
        """测试下移与后一条交换"""
        assert self.manager.move_down(self.cards["B"]) is True

        assert self.positions() == {"A": 0, "C": 1, "B": 2, "D": 3, "E": 4}

    def test_move_to_top_shifts_preceding(self):
        """测试置顶：原 0,1,2,3 变为 1,2,3,0，位置 4 不变"""
        assert self.manager.move_to_top(self.cards["D"]) is True

        assert self.positions() == {"D": 0, "A": 1, "B": 2, "C": 3, "E": 4}

    def test_move_to_bottom_shifts_following(self):
        """测试置底：后面的记录前移一位"""
        assert self.manager.move_to_bottom(self.cards["B"]) is True

        assert self.positions() == {"A": 0, "C": 1, "D": 2, "E": 3, "B": 4}

    @pytest.mark.parametrize("operation, title", [
        ("move_up", "A"),
        ("move_to_top", "A"),
        ("move_down", "E"),
        ("move_to_bottom", "E"),
    ])
    def test_boundary_moves_are_noops(self, operation, title):
        """测试边界处移动不改变任何位置"""
        before = self.positions()

        assert getattr(self.manager, operation)(self.cards[title]) is False

        assert self.positions() == before

    def test_other_groups_untouched(self):
        """测试移动不影响其他分组"""
        self.manager.move_to_top(self.cards["E"])
        self.manager.move_to_bottom(self.cards["A"])

        assert [c.position for c in self.other] == [0, 1, 2]

    def test_move_to_forward_and_backward(self):
        """测试移动到指定位置"""
        assert self.manager.move_to(self.cards["A"], 3) is True
        assert self.positions() == {"B": 0, "C": 1, "D": 2, "A": 3, "E": 4}

        assert self.manager.move_to(self.cards["E"], 1) is True
        assert self.positions() == {"B": 0, "E": 1, "C": 2, "D": 3, "A": 4}

    def test_move_to_clamps_out_of_range(self):
        """测试目标位置超出范围时截断"""
        self.manager.move_to(self.cards["B"], 99)
        assert self.cards["B"].position == 4

        self.manager.move_to(self.cards["B"], -3)
        assert self.cards["B"].position == 0

    def test_move_to_current_position_is_noop(self):
        """测试移动到当前位置返回 False"""
        assert self.manager.move_to(self.cards["C"], 2) is False

    def test_not_orderable_record_raises(self):
        """测试不参与排序的记录调用移动时抛出异常"""
        with pytest.raises(NotOrderableError):
            self.manager.move_up(Plain(title="P", position=1))

    def test_unassigned_position_raises(self):
        """测试未分配位置的记录不能移动"""
        with pytest.raises(OrderingError):
            self.manager.move_down(Card(title="new", board="todo"))

    def test_moves_use_runner_with_attempts(self):
        """测试移动通过事务执行器执行并传递尝试次数"""
        runner = RecordingRunner()
        manager = PositionManager(self.store, runner=runner, attempts=3)

        manager.move_up(self.cards["B"])
        manager.move_up(self.cards["B"])

        assert runner.calls == [3, 3]

    def test_from_settings(self):
        """测试根据 OrderingSettings 创建管理器"""
        manager = PositionManager.from_settings(
            self.store, OrderingSettings(transaction_attempts=4)
        )

        assert manager.attempts == 4
        assert manager.position_field == "position"


# ==================== 不变式 ====================

class TestInvariant:
    """位置不变式测试"""

    @pytest.mark.parametrize("seed", [1, 7, 42, 2024])
    def test_random_operation_sequence(self, seed):
        """测试随机操作序列后每个分组的位置恰为 0..n-1"""
        rng = random.Random(seed)
        store = InMemoryOrderedStore()
        manager = PositionManager(store)
        boards = ["todo", "doing", "done"]
        operations = ["move_up", "move_down", "move_to_top", "move_to_bottom"]

        for step in range(300):
            board = rng.choice(boards)
            group = OrderingGroup.for_model(Card, {"board": board})
            members = store.list_ordered(group)
            roll = rng.random()

            if not members or roll < 0.2:
                card = Card(title=f"c{step}", board=board)
                manager.assign_initial_position(card)
                store.save(card)
            elif roll < 0.3:
                manager.remove(rng.choice(members))
            elif roll < 0.4:
                manager.move_to(rng.choice(members), rng.randint(-1, len(members)))
            else:
                getattr(manager, rng.choice(operations))(rng.choice(members))

            for name in boards:
                manager.verify(OrderingGroup.for_model(Card, {"board": name}))

    def test_verify_detects_gap(self):
        """测试校验发现位置间隙"""
        store = InMemoryOrderedStore()
        cards = make_board(store, "todo", ["A", "B", "C"])
        cards[2].position = 5
        group = OrderingGroup.for_model(Card, {"board": "todo"})

        with pytest.raises(InvariantViolationError) as exc_info:
            PositionManager(store).verify(group)

        assert exc_info.value.positions == [0, 1, 5]
        assert exc_info.value.group == group

    def test_verify_detects_duplicate(self):
        """测试校验发现重复位置"""
        store = InMemoryOrderedStore()
        cards = make_board(store, "todo", ["A", "B"])
        cards[1].position = 0

        with pytest.raises(InvariantViolationError):
            PositionManager(store).verify(OrderingGroup.of(cards[0]))

    def test_verify_returns_count(self):
        """测试校验通过时返回记录数"""
        store = InMemoryOrderedStore()
        cards = make_board(store, "todo", TITLES)

        assert PositionManager(store).verify(OrderingGroup.of(cards[0])) == 5


# ==================== 原子性 ====================

class TestAtomicity:
    """写入失败时的回滚测试"""

    def setup_method(self):
        self.store = FaultyStore()
        self.manager = PositionManager(self.store)
        self.cards = dict(zip(TITLES, make_board(self.store, "todo", TITLES)))

    @pytest.mark.parametrize("operation, title", [
        ("move_up", "C"),
        ("move_down", "C"),
        ("move_to_top", "D"),
        ("move_to_bottom", "B"),
    ])
    def test_failed_save_restores_state(self, operation, title):
        """测试平移成功但保存目标记录失败时，状态恢复到操作前"""
        before = positions_by_title(self.store, "todo")
        self.store.fail_on = self.cards[title]

        with pytest.raises(RuntimeError):
            getattr(self.manager, operation)(self.cards[title])

        assert self.store.shifted > 0
        assert positions_by_title(self.store, "todo") == before
        assert self.cards[title].position == before[title]

    def test_failed_reorder_restores_state(self):
        """测试重排序中途失败时整体回滚"""
        before = positions_by_title(self.store, "todo")
        self.store.fail_on = self.cards["B"]
        group = OrderingGroup.of(self.cards["A"])
        new_order = [self.cards[t].id for t in ["E", "D", "C", "B", "A"]]

        with pytest.raises(RuntimeError):
            self.manager.reorder(group, new_order)

        assert positions_by_title(self.store, "todo") == before

    def test_failed_move_to_group_restores_both_groups(self):
        done = make_board(self.store, "done", ["X", "Y"])
        before = (positions_by_title(self.store, "todo"), positions_by_title(self.store, "done"))
        self.store.fail_on = self.cards["B"]

        with pytest.raises(RuntimeError):
            self.manager.move_to_group(self.cards["B"], {"board": "done"})

        assert self.cards["B"].board == "todo"
        assert (positions_by_title(self.store, "todo"), positions_by_title(self.store, "done")) == before
        assert [c.position for c in done] == [0, 1]

    def test_failed_unit_of_work_clears_assigned_identity(self):
        """测试失败的工作单元内新保存的记录不保留分配的标识"""
        card = Card(title="F", board="todo", position=5)

        def work():
            self.store.save(card)
            assert card.id is not None
            raise RuntimeError("abort")

        with pytest.raises(RuntimeError):
            self.store.run(work)

        assert card.id is None
        assert len(self.store) == 5
        assert self.store.save(card).id is not None
        assert len(self.store) == 6


# ==================== 分组维护 ====================

class TestGroupMaintenance:
    """删除收拢、规范化与重排序测试"""

    def setup_method(self):
        self.store = InMemoryOrderedStore()
        self.manager = PositionManager(self.store)
        self.cards = dict(zip(TITLES, make_board(self.store, "todo", TITLES)))
        self.group = OrderingGroup.for_model(Card, {"board": "todo"})

    def test_remove_closes_gap(self):
        """测试删除后后续记录前移"""
        self.manager.remove(self.cards["B"])

        assert positions_by_title(self.store, "todo") == {"A": 0, "C": 1, "D": 2, "E": 3}
        assert self.manager.verify(self.group) == 4

    def test_remove_last_record(self):
        """测试删除组尾记录"""
        self.manager.remove(self.cards["E"])

        assert len(self.store) == 4
        assert self.manager.verify(self.group) == 4

    def test_normalize_repairs_gaps(self):
        """测试规范化消除间隙"""
        for card, position in zip(self.cards.values(), [0, 3, 3, 8, 10]):
            card.position = position

        changed = self.manager.normalize(self.group)

        assert changed == 4
        assert positions_by_title(self.store, "todo") == {"A": 0, "B": 1, "C": 2, "D": 3, "E": 4}

    def test_reorder_by_identities(self):
        """测试按标识顺序重新编号"""
        ids = [self.cards[t].id for t in ["C", "A", "B", "E", "D"]]

        changed = self.manager.reorder(self.group, ids)

        assert changed == 5
        assert [c.title for c in self.manager.list_ordered(self.group)] == ["C", "A", "B", "E", "D"]

    def test_reorder_rejects_partial_list(self):
        """测试标识集合不完整时拒绝重排序"""
        before = positions_by_title(self.store, "todo")

        with pytest.raises(ValueError):
            self.manager.reorder(self.group, [self.cards["A"].id, self.cards["B"].id])

        assert positions_by_title(self.store, "todo") == before

    def test_reorder_rejects_duplicates(self):
        """测试标识重复时拒绝重排序"""
        ids = [c.id for c in self.cards.values()] + [self.cards["A"].id]

        with pytest.raises(ValueError):
            self.manager.reorder(self.group, ids)

    def test_list_ordered_breaks_ties_by_identity(self):
        """测试位置相同时按标识排序"""
        self.cards["E"].position = 0

        titles = [c.title for c in self.manager.list_ordered(self.group)]

        assert titles[:2] == ["A", "E"]


# ==================== 换组 ====================

class TestMoveToGroup:
    """move_to_group 测试"""

    def setup_method(self):
        self.store = InMemoryOrderedStore()
        self.manager = PositionManager(self.store)
        self.cards = dict(zip(TITLES, make_board(self.store, "todo", TITLES)))
        make_board(self.store, "done", ["X", "Y", "Z"])

    def test_appends_to_new_group_and_closes_gap(self):
        assert self.manager.move_to_group(self.cards["C"], {"board": "done"}) is True

        assert self.cards["C"].board == "done"
        assert positions_by_title(self.store, "todo") == {"A": 0, "B": 1, "D": 2, "E": 3}
        assert positions_by_title(self.store, "done") == {"X": 0, "Y": 1, "Z": 2, "C": 3}

    def test_into_empty_group(self):
        self.manager.move_to_group(self.cards["A"], {"board": None})

        assert positions_by_title(self.store, None) == {"A": 0}
        assert self.manager.verify(OrderingGroup.for_model(Card, {"board": "todo"})) == 4

    def test_same_group_is_noop(self):
        before = positions_by_title(self.store, "todo")

        assert self.manager.move_to_group(self.cards["B"], {"board": "todo"}) is False
        assert positions_by_title(self.store, "todo") == before

    def test_rejects_non_group_field(self):
        with pytest.raises(GroupMismatchError):
            self.manager.move_to_group(self.cards["B"], {"title": "renamed"})

        assert self.cards["B"].title == "B"
