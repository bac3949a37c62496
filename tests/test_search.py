"""
Tests for the refinement search driver against a scripted executor.
"""

import re

from src.llm.similarity import LexicalSimilarity
from src.refinement.cache import SearchCache
from src.refinement.error_types import SQLErrorType
from src.refinement.metrics import get_metrics_summary
from src.refinement.models import Query, RefinementStatus
from src.refinement.search import RefinementSearch
from src.sql.execution.executor import ExecutionError
from src.utils.errors import CollaboratorUnavailable
from tests.helpers import EMPTY, OK, TIMEOUT, ScriptedExecutor, normalize_sql

DEPT_ERROR = 'column "dept" does not exist'
JOIN_SQL = "SELECT employees.name, departments.name FROM employees"
JOIN_ERROR = 'missing FROM-clause entry for table "departments"'
JOINED_SQL = (
    "SELECT employees.name, departments.name FROM employees "
    "JOIN departments ON employees.department_id = departments.id"
)


class UnavailableOnce(ScriptedExecutor):
    """Scripted executor whose channel drops for one statement"""

    def __init__(self, failing_sql, **kwargs):
        super().__init__(**kwargs)
        self.failing_sql = normalize_sql(failing_sql)

    def execute(self, sql):
        if normalize_sql(sql) == self.failing_sql:
            self.executed.append(sql)
            raise CollaboratorUnavailable("executor", "connection reset")
        return super().execute(sql)


_SELECT_COLUMN = re.compile(r"SELECT\s+(\w+)")


def first_select_column(sql: str) -> str:
    """Error naming the first select column, whatever it is"""
    return f'column "{_SELECT_COLUMN.search(sql).group(1)}" does not exist'


class SwitchableSimilarity(LexicalSimilarity):
    """Lexical similarity whose collaborator can fail for one replacement"""

    def __init__(self, failing=None):
        self.failing = failing

    def similarity(self, original, candidate):
        if candidate == self.failing:
            raise CollaboratorUnavailable("embedding", "timeout")
        return super().similarity(original, candidate)


class TestSuccessfulRefinement:
    """Sessions that end in SUCCESS"""

    def test_single_column_fix(self, make_search):
        """Test a misspelled column is fixed in one hop"""
        executor = ScriptedExecutor({"SELECT department FROM employees": OK})

        result = make_search(executor).refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert result.status == RefinementStatus.SUCCESS
        assert result.sql == "SELECT department FROM employees"
        assert result.hops == 1
        assert result.executions == 1
        assert result.applied == [("column", "department")]
        assert result.rows == ((1,),)
        assert executor.executed == ["SELECT department FROM employees"]

    def test_missing_join(self, make_search):
        """Test a missing FROM entry is fixed by a foreign-key join"""
        executor = ScriptedExecutor({JOINED_SQL: OK})

        result = make_search(executor).refine_sql(JOIN_SQL, error=JOIN_ERROR)

        assert result.succeeded
        assert normalize_sql(result.sql) == normalize_sql(JOINED_SQL)
        assert result.applied == [("join", "departments")]

    def test_value_fix_after_empty_result(self, make_search):
        """Test an empty result triggers value refinement"""
        sql = "SELECT name FROM employees WHERE department = 'Engeneering'"
        executor = ScriptedExecutor({
            sql: EMPTY,
            "SELECT name FROM employees WHERE department = 'Engineering'": OK,
        })

        result = make_search(executor).refine_sql(sql)

        assert result.succeeded
        assert result.sql.endswith("department = 'Engineering'")
        assert executor.executed[0] == sql
        assert result.executions == 1

    def test_two_hop_refinement(self, make_search):
        """Test a new error after the first edit opens a deeper frame"""
        executor = ScriptedExecutor({
            "SELECT dept FROM employees": DEPT_ERROR,
            "SELECT department FROM employees": OK,
        })

        result = make_search(executor).refine_sql(
            "SELECT dept FROM employes", error='relation "employes" does not exist'
        )

        assert result.succeeded
        assert result.sql == "SELECT department FROM employees"
        assert result.hops == 2
        assert result.applied == [("table", "employees"), ("column", "department")]
        assert [hop.outcome for hop in result.trace] == ["new_error", "success"]

    def test_backtracked_success_reports_its_own_depth(self, make_search):
        """Test hops counts the edits of the successful query, not the deepest dead end"""
        executor = ScriptedExecutor(
            {"SELECT department FROM employees": 'relation "employees" does not exist'},
            default=lambda sql: OK if "FROM employees" in sql else TIMEOUT,
        )

        result = make_search(executor).refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert result.succeeded
        assert result.hops == 1
        assert result.trace[0].outcome == "new_error"
        assert any("FROM departments" in sql for sql in executor.executed)
        assert result.sql != "SELECT department FROM employees"

    def test_already_successful_query(self, make_search):
        """Test a query that runs cleanly is returned with zero hops"""
        executor = ScriptedExecutor(default=OK)

        result = make_search(executor).refine_sql("SELECT name FROM employees")

        assert result.status == RefinementStatus.SUCCESS
        assert result.hops == 0
        assert result.executions == 0
        assert result.sql == "SELECT name FROM employees"

    def test_execution_error_input(self, make_search):
        """Test a structured ExecutionError is accepted as the starting error"""
        executor = ScriptedExecutor({"SELECT department FROM employees": OK})
        query = Query.parse("SELECT dept FROM employees")

        result = make_search(executor).refine(query, ExecutionError(message=DEPT_ERROR, code="42703"))

        assert result.succeeded

    def test_unavailable_executor_skips_candidate(self, make_search):
        """Test a dropped connection skips the candidate instead of failing the session"""
        executor = UnavailableOnce("SELECT department FROM employees", default=OK)

        result = make_search(executor).refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert result.succeeded
        assert result.trace[0].outcome == "unavailable"
        assert result.sql != "SELECT department FROM employees"
        assert result.executions == 2


class TestEmptyResultRefinement:
    """Table, operand and join refinement of queries returning no rows"""

    def test_operand_swap(self, make_search):
        """Test a WHERE column compared to a value of another column is swapped"""
        sql = "SELECT name FROM departments WHERE name = 'Paris'"
        executor = ScriptedExecutor({
            sql: EMPTY,
            "SELECT name FROM departments WHERE location = 'Paris'": OK,
        })

        result = make_search(executor, enable_value_refinement=False).refine_sql(sql)

        assert result.succeeded
        assert result.sql == "SELECT name FROM departments WHERE location = 'Paris'"
        assert result.applied == [("result_operand", "location")]

    def test_table_swap(self, make_search):
        """Test the FROM table is swapped for another catalog table"""
        sql = "SELECT name FROM departments WHERE id = 4"
        executor = ScriptedExecutor({
            sql: EMPTY,
            "SELECT name FROM employees WHERE id = 4": OK,
        })

        result = make_search(executor).refine_sql(sql)

        assert result.succeeded
        assert result.sql == "SELECT name FROM employees WHERE id = 4"
        assert result.applied == [("result_table", "employees")]

    def test_foreign_key_join(self, make_search):
        """Test a join one foreign key away is added"""
        sql = "SELECT title FROM projects WHERE id = 3"
        joined = "SELECT title FROM projects JOIN departments ON projects.department_id = departments.id WHERE id = 3"
        executor = ScriptedExecutor({sql: EMPTY, joined: OK})

        result = make_search(
            executor,
            enable_result_table_refinement=False,
            enable_result_operand_refinement=False,
        ).refine_sql(sql)

        assert result.succeeded
        assert normalize_sql(result.sql) == normalize_sql(joined)
        assert result.applied == [("result_join", "departments")]

    def test_branches_disabled(self, make_search):
        """Test an empty result with every branch off is unclassifiable"""
        sql = "SELECT title FROM projects WHERE id = 3"
        executor = ScriptedExecutor({sql: EMPTY})

        result = make_search(
            executor,
            enable_result_table_refinement=False,
            enable_result_operand_refinement=False,
            enable_result_join_refinement=False,
        ).refine_sql(sql)

        assert result.status == RefinementStatus.UNCLASSIFIABLE
        assert executor.executed == [sql]


class TestTerminalStatuses:
    """DISABLED, UNCLASSIFIABLE, PARSE_FAILURE and EXHAUSTED"""

    def test_disabled(self, make_search):
        """Test the master switch returns the original query untouched"""
        executor = ScriptedExecutor(default=OK)

        result = make_search(executor, enable_safeql_refinement=False).refine_sql(
            "SELECT dept FROM employees", error=DEPT_ERROR
        )

        assert result.status == RefinementStatus.DISABLED
        assert result.sql == "SELECT dept FROM employees"
        assert executor.executed == []

    def test_unclassifiable(self, make_search):
        """Test a timeout is reported without any execution"""
        executor = ScriptedExecutor(default=OK)

        result = make_search(executor).refine_sql(
            "SELECT name FROM employees", error="canceling statement due to statement timeout"
        )

        assert result.status == RefinementStatus.UNCLASSIFIABLE
        assert result.executions == 0
        assert executor.executed == []

    def test_join_disabled_is_unclassifiable(self, make_search):
        """Test disabling the only applicable category makes the error unclassifiable"""
        executor = ScriptedExecutor({JOINED_SQL: OK})

        result = make_search(executor, enable_join_refinement=False).refine_sql(JOIN_SQL, error=JOIN_ERROR)

        assert result.status == RefinementStatus.UNCLASSIFIABLE
        assert result.executions == 0

    def test_parse_failure(self, make_search):
        """Test malformed SQL is never executed"""
        executor = ScriptedExecutor(default=OK)

        result = make_search(executor).refine_sql("SELECT name FROM employees WHERE (salary > 1")

        assert result.status == RefinementStatus.PARSE_FAILURE
        assert result.last_error.error_type == SQLErrorType.SYNTAX_ERROR
        assert executor.executed == []

    def test_zero_hop_bound(self, make_search):
        """Test max_refinement_hop=0 explores nothing"""
        executor = ScriptedExecutor(default=OK)

        result = make_search(executor, max_refinement_hop=0).refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert result.status == RefinementStatus.EXHAUSTED
        assert executor.executed == []

    def test_hop_bound_stops_second_hop(self, make_search):
        """Test a one-hop bound cannot reach the two-hop fix"""
        executor = ScriptedExecutor({
            "SELECT dept FROM employees": DEPT_ERROR,
            "SELECT department FROM employees": OK,
        })

        result = make_search(executor, max_refinement_hop=1).refine_sql(
            "SELECT dept FROM employes", error='relation "employes" does not exist'
        )

        assert result.status == RefinementStatus.EXHAUSTED
        assert result.hops == 1
        assert all(hop.outcome == "depth_bound" for hop in result.trace)
        assert "SELECT department FROM employees" not in executor.executed

    def test_execution_bound(self, make_search):
        """Test max_refinement_num caps candidate executions"""
        executor = ScriptedExecutor()

        result = make_search(executor, max_refinement_num=2).refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert result.status == RefinementStatus.EXHAUSTED
        assert result.executions == 2
        assert len(executor.executed) == 2

    def test_exhausted_reports_best_attempt(self, make_search):
        """Test an exhausted session keeps the last error and no corrected SQL"""
        executor = ScriptedExecutor()

        result = make_search(executor).refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert result.status == RefinementStatus.EXHAUSTED
        assert result.last_error.error_type == SQLErrorType.OTHER
        assert result.sql in executor.executed
        assert result.to_dict()["corrected_sql"] is None


class TestSearchBounds:
    """Depth-first exploration properties"""

    def test_chained_errors_respect_depth_bound(self, make_search):
        """Test every edit opening a new error never exceeds max_refinement_hop"""
        executor = ScriptedExecutor(default=first_select_column)

        result = make_search(executor, max_refinement_hop=2, max_refinement_num=40).refine_sql(
            "SELECT dept FROM employees", error=DEPT_ERROR
        )

        assert result.status == RefinementStatus.EXHAUSTED
        assert max(hop.depth for hop in result.trace) == 2
        assert "depth_bound" in {hop.outcome for hop in result.trace}
        assert result.executions <= 40

    def test_no_query_executed_twice(self, make_search):
        """Test visited queries are never re-executed"""
        executor = ScriptedExecutor(default=first_select_column)

        make_search(executor, max_refinement_hop=3, max_refinement_num=60).refine_sql(
            "SELECT dept FROM employees", error=DEPT_ERROR
        )

        assert len(executor.executed) == len(set(executor.executed))
        assert "SELECT dept FROM employees" not in executor.executed


class TestSessionReporting:
    """Metrics, cache reuse and serialization"""

    def test_metrics_recorded(self, make_search):
        """Test executed and fixing categories are counted"""
        executor = ScriptedExecutor({"SELECT department FROM employees": OK})

        make_search(executor).refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        summary = get_metrics_summary()
        assert summary["total_sessions"] == 1
        assert summary["successes"] == 1
        assert summary["by_category"]["executed"] == {"column": 1}
        assert summary["by_category"]["fixed"] == {"column": 1}

    def test_second_session_hits_cache(self, make_search):
        """Test ranked candidates are reused across sessions of one engine"""
        executor = ScriptedExecutor({"SELECT department FROM employees": OK})
        search = make_search(executor)

        first = search.refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)
        second = search.refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert first.cache_hits == 0
        assert second.cache_hits > 0
        assert second.sql == first.sql

    def test_cache_disabled(self, make_search):
        """Test no cache hits are reported with the cache off"""
        executor = ScriptedExecutor({"SELECT department FROM employees": OK})
        search = make_search(executor, enable_search_cache=False)

        search.refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)
        second = search.refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert second.cache_hits == 0
        assert len(search.cache) == 0

    def test_cache_does_not_change_outcome(self, make_search):
        """Test sessions with and without the cache reach the same query"""
        responses = {
            "SELECT dept FROM employees": DEPT_ERROR,
            "SELECT department FROM employees": OK,
        }
        error = 'relation "employes" does not exist'

        cached = make_search(ScriptedExecutor(responses)).refine_sql("SELECT dept FROM employes", error=error)
        uncached = make_search(ScriptedExecutor(responses), enable_search_cache=False).refine_sql(
            "SELECT dept FROM employes", error=error
        )

        assert cached.sql == uncached.sql
        assert cached.trace == uncached.trace

    def test_degraded_ranking_not_reused(self, catalog, config):
        """Test candidates dropped by a failing backend come back once it recovers"""
        similarity = SwitchableSimilarity(failing="department")
        search = RefinementSearch(
            ScriptedExecutor(default=OK), catalog, similarity=similarity, config=config, cache=SearchCache()
        )

        degraded = search.refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)
        similarity.failing = None
        recovered = search.refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert degraded.succeeded
        assert degraded.sql != "SELECT department FROM employees"
        assert recovered.sql == "SELECT department FROM employees"
        assert search.cache.get_stats()["skipped"] == 1

    def test_backends_do_not_share_cache(self, catalog, config):
        """Test searches scoring with different backends keep separate cache entries"""
        cache = SearchCache()
        executor = ScriptedExecutor({"SELECT department FROM employees": OK})
        lexical = RefinementSearch(executor, catalog, similarity=LexicalSimilarity(), config=config, cache=cache)
        other = RefinementSearch(executor, catalog, similarity=SwitchableSimilarity(), config=config, cache=cache)

        lexical.refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)
        other_result = other.refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)
        lexical_again = lexical.refine_sql("SELECT dept FROM employees", error=DEPT_ERROR)

        assert other_result.cache_hits == 0
        assert lexical_again.cache_hits > 0
        assert config.ranking_signature(LexicalSimilarity()) != config.ranking_signature(SwitchableSimilarity())

    def test_to_dict(self, make_search):
        """Test the serialized result carries the corrected SQL and trace"""
        executor = ScriptedExecutor({"SELECT department FROM employees": OK})

        payload = make_search(executor).refine_sql("SELECT dept FROM employees", error=DEPT_ERROR).to_dict()

        assert payload["status"] == "success"
        assert payload["corrected_sql"] == "SELECT department FROM employees"
        assert payload["applied"] == [{"category": "column", "replacement": "department"}]
        assert payload["trace"][0]["outcome"] == "success"
        assert payload["last_error"] is None
