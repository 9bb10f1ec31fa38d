import logging

from tokbox.utils.logger import NO_ANALYSIS_ID, AnalysisIdFilter, analysis_id_var, setup_logger


def make_record():
    return logging.LogRecord("tokbox.test", logging.INFO, __file__, 1, "🎞️ Extracting frames...", None, None)


def test_filter_stamps_current_analysis_id():
    record = make_record()
    assert AnalysisIdFilter().filter(record)
    assert record.analysis_id == NO_ANALYSIS_ID

    token = analysis_id_var.set("tokbox_1700000000000_abcdefghi")
    try:
        record = make_record()
        AnalysisIdFilter().filter(record)
    finally:
        analysis_id_var.reset(token)
    assert record.analysis_id == "tokbox_1700000000000_abcdefghi"


def test_console_handler_formats_analysis_id():
    logger = setup_logger("tokbox.logger_format_check")
    try:
        handler = logger.handlers[0]
        assert any(isinstance(f, AnalysisIdFilter) for f in handler.filters)

        token = analysis_id_var.set("tokbox_1_xyz")
        try:
            record = make_record()
            assert handler.filter(record)
        finally:
            analysis_id_var.reset(token)
        assert "[tokbox_1_xyz] 🎞️ Extracting frames..." in handler.format(record)
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
