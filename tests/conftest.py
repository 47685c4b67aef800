import textwrap
from pathlib import Path

import pytest
import yaml

from generate_node_interfaces import GeneratorConfig
from node_metadata import build_universe

NODES_YAML = textwrap.dedent("""\
    ### NodeMetadata
    root: Godot.Node
    types:
      - name: GodotObject
        namespace: Godot
        constructors: [{visibility: public, parameters: []}]
      - name: Node
        namespace: Godot
        base: Godot.GodotObject
        constructors: [{visibility: public, parameters: []}]
        members:
          - {kind: method, name: QueueFree, returns: void}
      - name: Base
        namespace: Godot
        base: Godot.Node
        constructors: [{visibility: public, parameters: []}]
        documentation: |
          <summary>
          A base node, see <see cref="T:Godot.Node" />.
          </summary>
        members:
          - {kind: property, name: Speed, type: double, getter: public, setter: public}
      - name: Child
        namespace: Godot
        base: Godot.Base
        constructors: [{visibility: public, parameters: []}]
        members:
          - kind: method
            name: Honk
            returns: void
            parameters: [{name: times, type: int}]
          - kind: property
            name: Speed
            type: double
            getter: public
            setter: public
            declared_by: Godot.Base
      - name: Shape
        namespace: Godot
        base: Godot.Node
        abstract: true
        constructors: [{visibility: protected, parameters: []}]
        members:
          - {kind: method, name: GetRect, returns: Godot.Rect2}
      - name: Sprite
        namespace: Godot
        base: Godot.Node
        constructors:
          - visibility: public
            parameters: [{name: texture, type: Godot.Texture2D}]
        members:
          - kind: method
            name: Zeta
            returns: void
          - kind: method
            name: Alpha
            returns: void
          - kind: property
            name: Frames
            type: Godot.Collections.Array`1<Godot.Texture2D>
            getter: public
          - kind: property
            name: Secret
            type: string
            getter: private
            setter: public
          - kind: property
            name: get_Frames
            type: Godot.Collections.Array`1<Godot.Texture2D>
            getter: public
          - {kind: method, name: get_Offset, returns: Godot.Vector2, special_name: true}
          - {kind: method, name: Create, returns: Godot.Sprite, static: true}
          - {kind: method, name: Internal, returns: void, visibility: internal}
          - {kind: field, name: Flags}
          - {kind: event, name: FrameChanged}
      - name: Texture2D
        namespace: Godot
        base: Godot.GodotObject
""")


@pytest.fixture
def nodes_data():
    return yaml.safe_load(NODES_YAML.split("\n", 1)[1])


@pytest.fixture
def universe(nodes_data):
    return build_universe(nodes_data)


@pytest.fixture
def nodes_yaml_path(tmp_path) -> Path:
    path = tmp_path / "godot-nodes.yml"
    path.write_text(NODES_YAML, encoding="utf-8")
    return path


@pytest.fixture
def config(tmp_path) -> GeneratorConfig:
    return GeneratorConfig(
        interfaces_dir=tmp_path / "interfaces",
        adapters_dir=tmp_path / "adapters",
    )


class MemorySink:
    def __init__(self):
        self.files: dict[Path, str] = {}

    def write(self, path: Path, text: str) -> None:
        self.files[path] = text


@pytest.fixture
def sink():
    return MemorySink()
