import textwrap

import pytest

from generate_node_interfaces import (
    CSharpPrinter,
    DirectorySink,
    GeneratorConfig,
    build_declarations,
    constraint_clauses,
    generate_all,
    generate_artifacts,
    load_config,
    main,
    synthesize_method,
)
from node_metadata import GenericParameter, MethodRecord, Parameter, build_universe
from type_names import TypeNameResolver, TypeRef, parse_type_ref

CHILD_INTERFACE = textwrap.dedent("""\
    namespace GodotNodeInterfaces;

    using Godot;
    using System;

    // Apply interface to a node implementation to make sure the
    // generated interface is correct.
    internal partial class ChildNode : Child, IChild { }

    public interface IChild : IBase {
      void Honk(int times);
    }
""")

CHILD_ADAPTER = textwrap.dedent("""\
    namespace GodotNodeInterfaces;

    using Godot;
    using System;

    public class ChildAdapter : BaseAdapter, IChild {
      private readonly Child _node;

      public ChildAdapter(Child node) : base(node) { _node = node; }

      public void Honk(int times) => _node.Honk(times);
    }
""")


def test_child_extends_base_artifacts(universe, config):
    pair = generate_artifacts(universe.types["Godot.Child"], universe, config)
    assert pair.interface_text == CHILD_INTERFACE
    assert pair.adapter_text == CHILD_ADAPTER
    assert "Speed" not in pair.interface_text
    assert "Speed" not in pair.adapter_text


def test_base_artifacts_are_standalone(universe, config):
    pair = generate_artifacts(universe.types["Godot.Base"], universe, config)
    assert "public interface IBase {" in pair.interface_text
    assert "  double Speed { get; set; }\n" in pair.interface_text
    assert "public class BaseAdapter : IBase {" in pair.adapter_text
    assert "  public BaseAdapter(Base node) { _node = node; }" in pair.adapter_text
    assert "  public double Speed { get => _node.Speed; set => _node.Speed = value; }" in pair.adapter_text


def test_type_documentation_is_rendered(universe, config):
    pair = generate_artifacts(universe.types["Godot.Base"], universe, config)
    expected = (
        "/// <summary>\n"
        '/// A base node, see <see cref="Node" />.\n'
        "/// </summary>\n"
        "public interface IBase {"
    )
    assert expected in pair.interface_text
    assert expected.replace("public interface IBase {", "public class BaseAdapter") in pair.adapter_text


def test_verification_only_for_instantiable_types(universe, config):
    for name, expected in [("Child", True), ("Shape", False), ("Sprite", False)]:
        pair = generate_artifacts(universe.types[f"Godot.{name}"], universe, config)
        assert (f"internal partial class {name}Node" in pair.interface_text) is expected
        assert "internal partial class" not in pair.adapter_text


def test_abstract_type_gets_abstract_adapter(universe, config):
    pair = generate_artifacts(universe.types["Godot.Shape"], universe, config)
    assert "public abstract class ShapeAdapter : IShape {" in pair.adapter_text
    assert "  Rect2 GetRect();" in pair.interface_text


def test_get_only_property_and_usings(universe, config):
    pair = generate_artifacts(universe.types["Godot.Sprite"], universe, config)
    assert pair.interface_text.startswith(
        "namespace GodotNodeInterfaces;\n\nusing Godot;\nusing Godot.Collections;\nusing System;\n"
    )
    assert "  Godot.Collections.Array<Texture2D> Frames { get; }\n" in pair.interface_text
    assert (
        "  public Godot.Collections.Array<Texture2D> Frames { get => _node.Frames; }\n"
        in pair.adapter_text
    )
    assert "Secret" not in pair.interface_text
    assert "get_Frames" not in pair.interface_text


def test_setter_only_property_is_not_emitted(config):
    universe = build_universe({
        "types": [
            {"name": "Node", "namespace": "Godot"},
            {
                "name": "Pad",
                "namespace": "Godot",
                "base": "Godot.Node",
                "members": [{"kind": "property", "name": "Target", "type": "int", "setter": "public"}],
            },
        ],
    })
    pair = generate_artifacts(universe.types["Godot.Pad"], universe, config)
    assert "Target" not in pair.interface_text
    assert "Target" not in pair.adapter_text


def test_member_order_follows_config(universe, config):
    alphabetical = generate_artifacts(universe.types["Godot.Sprite"], universe, config)
    assert alphabetical.interface_text.index("Alpha") < alphabetical.interface_text.index("Zeta")

    config.member_order = "declaration"
    declared = generate_artifacts(universe.types["Godot.Sprite"], universe, config)
    assert declared.interface_text.index("Zeta") < declared.interface_text.index("Alpha")


def test_interfaces_only(universe, config, sink):
    config.emit_adapters = False
    pairs = generate_all(universe, config, sink)
    assert len(pairs) == 4
    assert all(p.adapter_path is None for p in pairs)
    assert sorted(p.name for p in sink.files) == ["IBase.cs", "IChild.cs", "IShape.cs", "ISprite.cs"]


def test_generate_all_writes_two_files_per_type(universe, config, sink):
    generate_all(universe, config, sink)
    assert set(sink.files) == {
        config.interfaces_dir / "IBase.cs",
        config.interfaces_dir / "IChild.cs",
        config.interfaces_dir / "IShape.cs",
        config.interfaces_dir / "ISprite.cs",
        config.adapters_dir / "BaseAdapter.cs",
        config.adapters_dir / "ChildAdapter.cs",
        config.adapters_dir / "ShapeAdapter.cs",
        config.adapters_dir / "SpriteAdapter.cs",
    }


def test_generate_all_uses_given_node_types(universe, config, sink):
    pairs = generate_all(universe, config, sink, node_types=[universe.types["Godot.Child"]])
    assert [p.interface_path.name for p in pairs] == ["IChild.cs"]
    assert set(sink.files) == {
        config.interfaces_dir / "IChild.cs",
        config.adapters_dir / "ChildAdapter.cs",
    }


def test_escaped_member_and_parameter_names():
    resolver = TypeNameResolver()
    method = MethodRecord(
        name="lock",
        return_type=parse_type_ref("void"),
        parameters=[Parameter(name="object", type=parse_type_ref("Godot.Variant"))],
    )
    decl = synthesize_method(method, resolver)
    printer = CSharpPrinter("GodotNodeInterfaces", "Godot")
    assert printer.method_signature(decl) == "void @lock(Variant @object)"
    assert printer.adapter_member(decl) == "  public void @lock(Variant @object) => _node.@lock(@object);\n"


def test_generic_method_constraints():
    resolver = TypeNameResolver()
    method = MethodRecord(
        name="GetNode",
        return_type=TypeRef(name="T", is_generic_parameter=True),
        parameters=[Parameter(name="path", type=parse_type_ref("Godot.NodePath"))],
        generic_parameters=[
            GenericParameter(
                name="T",
                constraints=[parse_type_ref("Godot.Node")],
                reference_type=True,
            )
        ],
    )
    decl = synthesize_method(method, resolver)
    printer = CSharpPrinter("GodotNodeInterfaces", "Godot")
    assert printer.method_signature(decl) == (
        "T GetNode<T>(NodePath path) where T : class where T : Node"
    )
    assert printer.adapter_member(decl).endswith("=> _node.GetNode<T>(path);\n")
    assert decl.namespaces == {"Godot"}


def test_constraint_flags_are_shared_across_type_parameters():
    clauses, _ = constraint_clauses(
        [
            GenericParameter(name="TKey", default_constructor=True),
            GenericParameter(name="TValue", not_nullable_value_type=True),
        ],
        TypeNameResolver(),
    )
    assert [(c.parameter, c.constraints) for c in clauses] == [
        ("T", ["new()"]),
        ("T", ["struct"]),
    ]


def test_build_declarations_inheritance_wiring(universe, config):
    interface, adapter = build_declarations(universe.types["Godot.Child"], universe, config)
    assert interface.base_interface == "IBase"
    assert adapter.base_adapter == "BaseAdapter"

    interface, adapter = build_declarations(universe.types["Godot.Base"], universe, config)
    assert interface.base_interface is None
    assert adapter.base_adapter is None


def test_output_namespace_not_imported(config):
    universe = build_universe({
        "types": [
            {"name": "Node", "namespace": "Godot"},
            {
                "name": "Panel",
                "namespace": "Godot",
                "base": "Godot.Node",
                "members": [{"kind": "method", "name": "Wrap", "returns": "GodotNodeInterfaces.IPanel"}],
            },
        ],
    })
    pair = generate_artifacts(universe.types["Godot.Panel"], universe, config)
    assert "using GodotNodeInterfaces;" not in pair.interface_text
    assert "  IPanel Wrap();" in pair.interface_text


def test_load_config(tmp_path):
    path = tmp_path / "generator.yml"
    path.write_text(
        "output_namespace: Game.Nodes\n"
        "interfaces_dir: out/interfaces\n"
        "member_order: declaration\n"
        "emit_adapters: false\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.output_namespace == "Game.Nodes"
    assert config.interfaces_dir == (tmp_path / "out" / "interfaces").resolve()
    assert config.member_order == "declaration"
    assert not config.emit_adapters
    assert config.root_type == GeneratorConfig().root_type


def test_load_config_rejects_unknown_keys(tmp_path):
    path = tmp_path / "generator.yml"
    path.write_text("colour: blue\n", encoding="utf-8")
    with pytest.raises(ValueError, match="colour"):
        load_config(path)


def test_directory_sink_dry_run(tmp_path, capsys):
    DirectorySink(dry_run=True).write(tmp_path / "x" / "IFoo.cs", "abc")
    assert not (tmp_path / "x").exists()
    assert "Would write" in capsys.readouterr().out


def test_main_writes_files(nodes_yaml_path, tmp_path, capsys):
    interfaces = tmp_path / "out" / "interfaces"
    adapters = tmp_path / "out" / "adapters"
    code = main([
        "--metadata", str(nodes_yaml_path),
        "--docs", str(nodes_yaml_path.parent / "missing.xml"),
        "--interfaces-dir", str(interfaces),
        "--adapters-dir", str(adapters),
    ])
    assert code == 1
    assert "ERROR" in capsys.readouterr().err

    code = main([
        "--metadata", str(nodes_yaml_path),
        "--interfaces-dir", str(interfaces),
        "--adapters-dir", str(adapters),
    ])
    assert code == 0
    assert (interfaces / "IChild.cs").read_text(encoding="utf-8") == CHILD_INTERFACE
    assert (adapters / "ChildAdapter.cs").read_text(encoding="utf-8") == CHILD_ADAPTER
    out = capsys.readouterr().out
    assert "Found 4 types extending Godot.Node" in out


def test_main_missing_metadata(tmp_path, capsys):
    assert main(["--metadata", str(tmp_path / "nope.yml")]) == 1
    assert "ERROR" in capsys.readouterr().err
