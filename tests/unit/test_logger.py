"""
Tests for Logger output.

Covers:
- Template output to stderr and stdout
- JSON line file output
- Level filtering
"""

import msgspec
import pytest

from stageline.logging import Logger, LoggingConfig
from stageline.logging.stageline_logging_models import (
    ServerDebug,
    ServerError,
    StageError,
)


class TestLoggerOutput:
    @pytest.mark.asyncio
    async def test_writes_template_to_stderr(self, capsys):
        logger = Logger()

        await logger.log(
            ServerError(
                message='bind failed',
                node_host='127.0.0.1',
                node_port=41234,
                transport='datagram',
            ),
            name='stageline.datagram',
        )
        await logger.close()

        err = capsys.readouterr().err
        assert 'ERROR - stageline.datagram' in err
        assert err.rstrip().endswith('bind failed')

    @pytest.mark.asyncio
    async def test_custom_template_and_stdout(self, capsys):
        LoggingConfig().update(log_output='stdout')
        logger = Logger()

        try:
            await logger.log(
                StageError(
                    message='handler raised',
                    dispatcher='test',
                    stage='connect',
                ),
                template='{level} {dispatcher} {stage} {message}',
            )

        finally:
            LoggingConfig().update(log_output='stderr')
            await logger.close()

        assert capsys.readouterr().out == 'ERROR test connect handler raised\n'

    @pytest.mark.asyncio
    async def test_below_threshold_is_dropped(self, capsys):
        logger = Logger()

        await logger.log(
            ServerDebug(
                message='quiet',
                node_host='127.0.0.1',
                node_port=3000,
                transport='stream',
            ),
        )
        await logger.close()

        assert capsys.readouterr().err == ''

    @pytest.mark.asyncio
    async def test_file_output_is_json_lines(self, tmp_path):
        logger = Logger()
        logfile = tmp_path / 'server.json'

        for port in (3000, 3001):
            await logger.log(
                ServerError(
                    message='closed',
                    node_host='127.0.0.1',
                    node_port=port,
                    transport='stream',
                ),
                name='stageline.stream',
                path=str(logfile),
            )

        await logger.close()

        records = [
            msgspec.json.decode(line)
            for line in logfile.read_bytes().splitlines()
        ]

        assert [record['entry']['node_port'] for record in records] == [3000, 3001]
        assert all(record['logger'] == 'stageline.stream' for record in records)
        assert records[0]['entry']['level'] == 'ERROR'
        assert records[0]['function_name'] == 'test_file_output_is_json_lines'
