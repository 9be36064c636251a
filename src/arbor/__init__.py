'''

# Arbor

A hierarchical configuration store served over HTTP.

## Design

The store holds a tree of nodes. Each node holds a value and a set of
uniquely named child nodes. A node is addressed by a forward-slash (`/`)
delimited path of child names starting at the root, much like a UNIX file
path or URL. The value can be anything that can be serialized in JavaScript
Object Notation (JSON).

The store supports four operations.
 - `create`: attach a new subtree at a path that is not yet taken
 - `read`: retrieve the subtree at a path
 - `update`: replace the existing subtree at a path
 - `delete`: remove the subtree at a path

Unlike a merge-on-write key-value store, a subtree is always replaced as a
whole. `create` never overwrites and `update` never creates. Both require the
parent of the target path to exist already. The empty path addresses the root
and extra slashes anywhere in a path are ignored.

### Example

Suppose the store starts empty. After `create('', node)` with the body
```
{
    "value": "root val",
    "children": {}
}
```
the root exists and a second `create('', ...)` is a conflict. After
`create('a', {"value": 1})` and `create('a/b', {"value": [1, 2]})`, the
`read` operations below have the following results.
 - `read('a/b') -> {"value": [1, 2], "children": {}}`
 - `read('a') -> {"value": 1, "children": {"b": {"value": [1, 2], "children": {}}}}`
 - `read('a/c')` fails with not found

## Usage

The following code snippet starts a server on all interfaces at the default
port, persisting the tree to `config.json`.
```
from arbor.store import ConfigStore
from arbor.server import ConfigServer

server = ConfigServer(ConfigStore.open('config.json'))
server.run()
```
The `ConfigServer.run` method blocks until a `KeyboardInterrupt`
is raised. The same is available from the command line as `arbor-server`.

The following code snippet creates a client that connects to `localhost`
on the default port.
```
from arbor.client import ArborClient

client = ArborClient()
client.create('', {'value': 'root val'})
client.create('a', {'value': 4})
client.read('a').value # -> 4
```
'''

DEFAULT_PORT = 8080
DEFAULT_CONFIG = 'config.json'
