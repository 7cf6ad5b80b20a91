from mockloop.cli import build_parser


def test_parser_defaults():
    args = build_parser().parse_args([])

    assert args.interview_type == "dsa"
    assert args.difficulty == "intermediate"
    assert args.company_target == "product"
    assert args.duration_minutes is None


def test_parser_custom_role():
    args = build_parser().parse_args(
        ["--type", "custom", "--role", "Data Engineer", "--duration", "20", "-v"]
    )

    assert args.custom_role == "Data Engineer"
    assert args.duration_minutes == 20
    assert args.verbose
