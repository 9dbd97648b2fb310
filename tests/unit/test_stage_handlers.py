"""
Tests for StageHandlers, the per-stage handler registry.

Covers:
- Registration order and duplicate handlers
- Configuration mapping with absent stages
- Unknown stage names being rejected without aborting registration
- The default error handler state flag
"""

from stageline.lifecycle import (
    ErrorHandlerState,
    Stage,
    StageHandlers,
    UnknownStageError,
)


def first():
    pass


def second():
    pass


def fallback(event):
    pass


class TestStageHandlersRegistration:
    """Tests for building chains from a mapping and by appending."""

    def test_mapping_preserves_order(self) -> None:
        handlers = StageHandlers({'connect': [first, second]})

        assert handlers.chain(Stage.CONNECT) == [first, second]

    def test_absent_stages_default_to_empty(self) -> None:
        handlers = StageHandlers({'connect': [first]})

        for stage in Stage:
            if stage is Stage.CONNECT or stage is Stage.ERROR:
                continue

            assert handlers.chain(stage) == []

    def test_duplicates_are_kept(self) -> None:
        handlers = StageHandlers()
        handlers.register('init', first)
        handlers.register(Stage.INIT, first)

        assert handlers.chain(Stage.INIT) == [first, first]
        assert handlers.count(Stage.INIT) == 2

    def test_register_appends_after_mapping(self) -> None:
        handlers = StageHandlers({'shutdown': [first]})
        handlers.register('shutdown', second)

        assert handlers.chain(Stage.SHUTDOWN) == [first, second]

    def test_chain_is_a_copy(self) -> None:
        handlers = StageHandlers({'init': [first]})
        handlers.chain(Stage.INIT).append(second)

        assert handlers.chain(Stage.INIT) == [first]


class TestStageHandlersUnknownStage:
    """Tests for configuration errors at registration time."""

    def test_unknown_stage_is_rejected(self) -> None:
        handlers = StageHandlers()

        error = handlers.register('teleport', first)

        assert isinstance(error, UnknownStageError)
        assert error.name == 'teleport'
        assert handlers.rejected == [(error, first)]

    def test_unknown_stage_does_not_stop_mapping(self) -> None:
        handlers = StageHandlers({
            'teleport': [first],
            'connect': [second],
        })

        assert handlers.chain(Stage.CONNECT) == [second]
        assert len(handlers.rejected) == 1

    def test_take_rejected_drains(self) -> None:
        handlers = StageHandlers({'teleport': [first]})

        assert len(handlers.take_rejected()) == 1
        assert handlers.take_rejected() == []


class TestStageHandlersErrorState:
    """Tests for the default error handler flag."""

    def test_default_used_until_registration(self) -> None:
        handlers = StageHandlers(default_error_handler=fallback)

        assert handlers.error_handler_state is ErrorHandlerState.USING_DEFAULT
        assert handlers.chain(Stage.ERROR) == [fallback]

    def test_first_error_handler_replaces_default(self) -> None:
        handlers = StageHandlers(default_error_handler=fallback)
        handlers.register('error', first)

        assert handlers.error_handler_state is ErrorHandlerState.USER_REGISTERED
        assert handlers.chain(Stage.ERROR) == [first]

    def test_second_error_handler_appends(self) -> None:
        handlers = StageHandlers(default_error_handler=fallback)
        handlers.register('error', first)
        handlers.register('error', second)

        assert handlers.chain(Stage.ERROR) == [first, second]

    def test_error_handlers_from_mapping(self) -> None:
        handlers = StageHandlers(
            {'error': [first]},
            default_error_handler=fallback,
        )

        assert handlers.chain(Stage.ERROR) == [first]

    def test_empty_error_list_keeps_default(self) -> None:
        handlers = StageHandlers(
            {'error': []},
            default_error_handler=fallback,
        )

        assert handlers.error_handler_state is ErrorHandlerState.USING_DEFAULT
        assert handlers.chain(Stage.ERROR) == [fallback]
