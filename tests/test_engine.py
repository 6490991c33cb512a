"""End-to-end tests through the engine facade"""

import random

from bowling_brackets.engine import BracketEngine

from tests.support import EngineHarness, run, split_total


def test_connect_and_run_a_session(db_path):
    async def scenario():
        engine = await BracketEngine.connect(f"sqlite:///{db_path}", rng=random.Random(5), base_delay=0)
        try:
            harness = EngineHarness(db_path)
            harness.store = engine.store
            session_id = await harness.create_session()
            for lane in range(1, 9):
                await harness.add_competitor(session_id, average=160 + lane, lane=lane % 4 + 1, eliminator=True)

            generated = await engine.generate(session_id, 'scratch')
            assert generated.success
            bracket = generated.data.brackets[0]

            entries = (await engine.get_entries(bracket.id)).data
            sheet = {entry.id: split_total(600 + entry.position) for entry in entries}
            assert (await engine.record_bracket_sheet(bracket.id, 1, sheet)).success

            progressed = await engine.progress(session_id, 'scratch')
            assert progressed.data.progressed_brackets == 1

            winner = (await engine.get_brackets(session_id)).data[0].winner
            assert winner.id == entries[-1].competitor_id

            standings = await engine.list_side_game_entries(session_id, 'eliminator', 1)
            assert len(standings.data) == 8
            assert standings.data[0].score >= standings.data[-1].score
        finally:
            await engine.close()

    run(scenario())


def test_session_stats(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            await h.add_competitor(session_id, average=180, lane=3, scratch_brackets=2, eliminator=True)
            await h.add_competitor(session_id, average=191, lane=5, handicap_brackets=3, high_game_scratch=True)
            await h.add_competitor(session_id, average=200, lane=3, high_game_handicap=True)

            result = await h.engine.get_session_stats(session_id)
            stats = result.data
            assert stats.total == 3
            assert stats.scratch_entries == 4
            assert stats.handicap_entries == 5
            assert (stats.high_game_scratch, stats.high_game_handicap, stats.eliminator) == (1, 1, 1)
            assert stats.average_score == 190
            assert stats.lanes_used == [3, 5]

            missing = await h.engine.get_session_stats(404)
            assert missing.success
            assert missing.data.total == 0

    run(scenario())


def test_eligible_competitors_by_category(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            enrolled = await h.add_competitor(session_id, eliminator=True)
            await h.add_competitor(session_id)

            result = await h.engine.competitors.get_eligible_competitors(session_id, 'eliminator')
            assert [c.id for c in result.data] == [enrolled]

            result = await h.engine.competitors.get_eligible_competitors(session_id, 'doubles')
            assert result.error_code == 'invalid_input'

            session = await h.engine.competitors.get_session(session_id)
            assert session.data.handicap_percentage == 80

    run(scenario())
